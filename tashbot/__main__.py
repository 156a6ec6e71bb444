from tashbot.main import main

main()
