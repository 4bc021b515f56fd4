# conductboard/urls.py

"""
The grading engine exposes no HTTP views of its own; callers mount it
behind their own transport layer.
"""

urlpatterns = []
