from mirror_relay.app import main

main()
