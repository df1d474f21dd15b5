"""Inflation allocation module: types, keeper, block hooks, migrations and contract message decoding."""