"""
Command-line interface for the nested set store.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""
