"""
Elastic Beanstalk Entry Point
"""
import os
import sys

# Make `backend` importable when started from another working directory
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from backend.app import app as application

if __name__ == "__main__":
    application.run()
