#!/usr/bin/env python3
"""
Main execution module for the S3 to dStorage migration tool
"""

from s3_migrator.cli.commands import main

if __name__ == "__main__":
    main()
