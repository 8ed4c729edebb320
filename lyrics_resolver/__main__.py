from lyrics_resolver.cli import main

main()
