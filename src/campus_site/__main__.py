from campus_site.main import main

main()
