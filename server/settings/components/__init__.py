from pathlib import Path

from decouple import AutoConfig

# Build paths inside the project like this: BASE_DIR / 'server'
BASE_DIR = Path(__file__).parent.parent.parent.parent

# Loading `.env` files
# See docs: https://github.com/HBNetwork/python-decouple
config = AutoConfig(search_path=BASE_DIR.joinpath('config'))
