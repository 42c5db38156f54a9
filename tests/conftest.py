pytest_plugins = [
    "tests.fixtures.app_client",
    "tests.fixtures.uploads",
]
