from provcli.cli import main

main()
