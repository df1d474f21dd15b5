"""Privileged contract module: types, keeper, and block hooks that call contracts at block begin and end."""