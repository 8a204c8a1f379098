# Saffeh parking client
