#!/usr/bin/env python3
from contact_extractor.cli import main


if __name__ == "__main__":
    main()
