from mangum import Mangum
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

os.environ.setdefault("POCKET_MONEY_ROOT_PATH", "/api")

from pocket_money.api import app

handler = Mangum(app)
