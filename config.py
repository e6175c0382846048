# config.py
import logging
import os

# channel bytes strictly above this are "on"
CHANNEL_THRESHOLD = 128

BMP_MAGIC = 0x4D42  # "BM"
BMP_FILE_HEADER_SIZE = 14
DIB_HEADER_SIZE = 40

BIP_ASSET_TYPE = "bm"
BIP_MAGIC = b"BMd\x00"
BIP_HEADER_SIZE = 0x10

LOG_LEVEL = os.environ.get("BIPCONV_LOG_LEVEL", "INFO").upper()
if not isinstance(logging.getLevelName(LOG_LEVEL), int):
    LOG_LEVEL = "INFO"
