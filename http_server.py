#!/usr/bin/env python3
"""
ytprofile HTTP Server Runner
"""

from ytprofile.interfaces.http import HTTPServer


def main():
    """Run the HTTP server."""
    server = HTTPServer(
        host='localhost',
        port=3000,
        debug=True
    )
    server.run()


if __name__ == '__main__':
    main()
