#
# src/testwire/cli/__init__.py
#
"""
Command-line front end for testwire.
"""
