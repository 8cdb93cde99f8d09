#!/usr/bin/env python3
import os

from dotenv import load_dotenv

load_dotenv()

from rentledger import create_app  # noqa: E402

app = create_app(os.environ.get("CONFIG_CLASS", "rentledger.config.ProductionConfig"))
