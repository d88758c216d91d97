from natsstreamingoperator.cli import main

main()
