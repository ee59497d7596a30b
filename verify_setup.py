#!/usr/bin/env python3
"""
Convenience script to verify the Azure Lens setup
"""

import sys
import os

# Add the current directory to the path so we can import from azure_lens
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from azure_lens.scripts.verify_setup import main

if __name__ == "__main__":
    sys.exit(main())
