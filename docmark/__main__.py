from docmark.cli import main

main()
