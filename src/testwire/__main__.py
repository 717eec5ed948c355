# src/testwire/__main__.py

from testwire.cli.main import main

main()

# 🔼⚙️
