import uvicorn

from origin_proxy.vars import HOST, LOG_LEVEL, PORT


def main():
    # Server and Date headers come from the backend, uvicorn must not add its own
    uvicorn.run(
        "origin_proxy.server:app",
        host=HOST,
        port=PORT,
        log_level=LOG_LEVEL,
        server_header=False,
        date_header=False,
    )


if __name__ == "__main__":
    main()
