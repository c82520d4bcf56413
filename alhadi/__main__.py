from alhadi.main import main

main()
