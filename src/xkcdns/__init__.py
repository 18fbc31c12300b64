"""xkcdns package"""
