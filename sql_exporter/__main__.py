"""Allow ``python -m sql_exporter``"""
import sys

from .main import main

sys.exit(main())
