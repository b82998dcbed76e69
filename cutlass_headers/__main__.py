from cutlass_headers.cli import main

if __name__ == "__main__":
    main()
