from projecthub.main import main

main()
