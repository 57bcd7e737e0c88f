"""Serverless site deployment: static assets on S3/CloudFront, server on Lambda."""
