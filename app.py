from kitchen_inventory import create_app

app = create_app()

if __name__ == "__main__":
    # Local only; the inventory is a single-user tool
    app.run(host="127.0.0.1", port=5000, debug=True)
