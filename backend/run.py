import uvicorn
import argparse
import logging
import os

from authport.main import app


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="authport API runner")
    parser.add_argument("--host", type=str, default="127.0.0.1", help="Host interface to bind")
    parser.add_argument("--port", type=int, default=8334, help="Port to run the backend on")
    parser.add_argument("--dir", type=str, default=None, help="Config directory (profiles.json, tokens.json)")
    parser.add_argument("--log-level", type=str, default=os.getenv("AUTHPORT_LOG_LEVEL", "INFO"))

    args = parser.parse_args()

    # Settings.from_env picks this up when the workspace is first opened
    if args.dir:
        os.environ["AUTHPORT_CONFIG_DIR"] = os.path.abspath(os.path.expanduser(args.dir))

    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")

    print(f"Starting authport on http://{args.host}:{args.port}")
    print(f"Config: {os.environ.get('AUTHPORT_CONFIG_DIR', '~/.config/authport')}")

    uvicorn.run(app, host=args.host, port=args.port, reload=False)
