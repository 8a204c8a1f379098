# Wire schemas (pydantic) for the Saffeh backend contract
