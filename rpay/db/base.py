from sqlalchemy.orm import declarative_base


Base = declarative_base()

# Money columns are SQLite INTEGER (signed 64-bit)
MAX_AMOUNT = 2**63 - 1
