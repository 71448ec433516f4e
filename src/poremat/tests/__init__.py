from pathlib import Path

TEST_FILES_PATH = Path(__file__).parent / "test_files"

TEST_FILES = {x.name: x for x in TEST_FILES_PATH.iterdir()}
