"""files-core command line interface"""
