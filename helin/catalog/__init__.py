"""Typed values, column schemas, tuples, tuple keys and key serializers."""