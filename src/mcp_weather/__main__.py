from mcp_weather.cli import main

if __name__ == "__main__":
    main()
