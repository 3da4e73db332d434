import os

from goldledger import create_app

app = create_app()

if __name__ == '__main__':
    port = int(os.getenv("PORT", "5000"))
    app.run(host="127.0.0.1", port=port, debug=os.getenv("FLASK_DEBUG", "0") == "1")
