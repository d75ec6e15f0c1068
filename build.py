#!/usr/bin/env python3
from babysteps.cli import main

if __name__ == "__main__":
    main()
