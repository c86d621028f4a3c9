from dotenv import load_dotenv

from fantium_deployment.constants import DOTENV_FILEPATH

# ape expands ${VARS} in ape-config.yaml on first read, after the scripts import this package
load_dotenv(dotenv_path=DOTENV_FILEPATH, override=False)
