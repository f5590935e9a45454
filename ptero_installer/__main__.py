from ptero_installer.cli import main

main()
