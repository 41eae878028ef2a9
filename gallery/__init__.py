"""
Header Image Gallery API

- Scans an images folder (natural filename order) for /api/images and /api/images/details
- Builds carousel slides from a configured table or the folder for /api/carousel
- Proxies an upstream header-images set, window-filtered and order-sorted, for /api/header-images
- /health
"""
