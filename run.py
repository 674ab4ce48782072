from nft_snapshot.core.main import main
if __name__ == '__main__':
    main()
