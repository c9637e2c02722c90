from getme.main import main

main()
