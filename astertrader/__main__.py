from astertrader.main import main

main()
