from pactd.app import main

main()
