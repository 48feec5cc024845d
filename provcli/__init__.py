"""Providence CLI.

`prov engine build` packages a build context (a directory, git repository,
remote file or stdin) and sends it to a Providence server.
"""

__version__ = "1.0.0"
