from database import engine, Base
import models  # noqa: F401

def init_database():
    if engine is None:
        print("DATABASE_URL is not set, nothing to initialize")
        return
    Base.metadata.create_all(bind=engine)
    print("Database tables created successfully!")

if __name__ == "__main__":
    init_database()
