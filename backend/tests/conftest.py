import os

# Point the app at a throwaway SQLite file and blank API keys before it is imported,
# so tests never touch a real database or third-party API.
os.environ["DATABASE_URL"] = "sqlite:///./test_sweats.db"
os.environ["HYPIXEL_API_KEY"] = ""
os.environ["URCHIN_KEY"] = ""
