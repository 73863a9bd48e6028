#!/usr/bin/env python3
"""
LinkPort HTTP Server Runner
"""

import os

from linkport.interfaces.http import HTTPServer


def main():
    """Run the HTTP server."""
    server = HTTPServer(
        host=os.getenv('HOST', 'localhost'),
        port=int(os.getenv('PORT', '3001')),
        debug=os.getenv('FLASK_DEBUG') == '1'
    )
    server.run()


if __name__ == '__main__':
    main()
