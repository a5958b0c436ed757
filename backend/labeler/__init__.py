"""
Whiteboard labeling service.

Users view an unlabeled whiteboard image, draw bounding boxes over handwritten
chunks, transcribe each chunk and assign a confidence tier. Completed boards
can be reviewed and exported as CSV. Authentication, storage and image hosting
are delegated to Supabase.
"""

__version__ = "0.1.0"
