"""Entry point when run as a module: python -m simple_todo"""

from simple_todo.cli.main import main

if __name__ == "__main__":
    main()
